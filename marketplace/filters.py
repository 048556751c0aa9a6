import django_filters

from marketplace.ordering.domain.models.order import Order
from marketplace.ordering.domain.state_machine import OrderStatus


class OrderFilter(django_filters.FilterSet):
    """
    Query-string filters for the order list of the current user
    """

    status = django_filters.ChoiceFilter(choices=OrderStatus.CHOICES)

    # Which side of the sale the current user is on
    role = django_filters.ChoiceFilter(choices=[("buyer", "Buyer"), ("seller", "Seller")], method="filter_role")

    class Meta:
        model = Order
        fields = ["status", "role"]

    def filter_role(self, queryset, name, value):
        user_id = self.request.user.id
        if value == "buyer":
            return queryset.filter(buyer_id=user_id)
        return queryset.filter(seller_id=user_id)
