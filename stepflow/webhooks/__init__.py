"""Webhook trigger arrival: signature checks and run start."""
