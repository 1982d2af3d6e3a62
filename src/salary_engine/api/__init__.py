"""HTTP API for payroll runs, previews and declarations."""
