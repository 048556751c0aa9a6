from rest_framework import serializers

from marketplace.disputes.domain.models.dispute import Dispute, DisputeMessage, DisputeStatus


class DisputeMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = DisputeMessage
        fields = ["id", "sender", "sender_name", "sender_role", "text", "created_at"]
        read_only_fields = fields


class DisputeSerializer(serializers.ModelSerializer):
    messages = DisputeMessageSerializer(many=True, read_only=True)
    resolution = serializers.SerializerMethodField()

    class Meta:
        model = Dispute
        fields = [
            "id",
            "order",
            "order_number",
            "article_id",
            "article_title",
            "buyer",
            "buyer_name",
            "seller",
            "seller_name",
            "amount",
            "reason",
            "description",
            "evidence",
            "status",
            "resolution",
            "resolved_at",
            "resolved_by",
            "opened_by",
            "created_at",
            "messages",
        ]
        read_only_fields = fields

    def get_resolution(self, obj):
        resolution = obj.resolution
        if resolution is None:
            return None
        resolution["decided_at"] = serializers.DateTimeField().to_representation(resolution["decided_at"])
        return resolution


# ===== Request bodies =====


class CreateDisputeRequestSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    reason = serializers.ChoiceField(choices=Dispute.REASON_CHOICES)
    description = serializers.CharField()
    evidence = serializers.ListField(child=serializers.CharField(max_length=500), required=False, default=list)


class OpenOrderDisputeRequestSerializer(serializers.Serializer):
    """Dispute opened from the order endpoint; the order comes from the URL"""

    reason = serializers.ChoiceField(choices=Dispute.REASON_CHOICES)
    description = serializers.CharField()
    evidence = serializers.ListField(child=serializers.CharField(max_length=500), required=False, default=list)


class DisputeMessageRequestSerializer(serializers.Serializer):
    text = serializers.CharField()


class ResolutionSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=["refund", "buyer_favor", "seller_favor"], required=False)
    amount = serializers.IntegerField(required=False, min_value=1)
    reason = serializers.CharField()


class DisputeStatusRequestSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DisputeStatus.CHOICES)
    resolution = ResolutionSerializer(required=False)


class RefundRequestSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1)
    reason = serializers.CharField()


class ResolutionReasonRequestSerializer(serializers.Serializer):
    reason = serializers.CharField()
