"""Pipeline stages and the Prefect flows that schedule them."""
