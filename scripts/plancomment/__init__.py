"""Terraform plan summaries posted as size-bounded PR comments."""
