"""Terraform-style provisioning for Azure role definitions and database administrators."""

__version__ = "0.1.0"
