"""Linode instance provisioning and reconciliation."""
