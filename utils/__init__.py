# Utils package for the Liggeey backend
