"""QueryDesk: role-gated SQL workbench for MySQL and PostgreSQL."""
