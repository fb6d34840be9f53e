"""Click commands for vaultdeploy."""
