"""
graviton

Command-line orchestrator that provisions, inspects and tears down Stardog
clusters on a public cloud by driving Terraform.
"""

__version__ = "0.1.0"
