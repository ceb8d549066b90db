from sheets.client import SheetClient, apply_column_mapping

__all__ = ["SheetClient", "apply_column_mapping"]
