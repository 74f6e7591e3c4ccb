"""HTTP API for the payroll submission workflow."""
