"""Experience library, keyword scoring and map/reduce knowledge distillation."""