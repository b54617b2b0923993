"""AWS plugin: EBS volume sets and EC2 instance sets driven by Terraform."""
