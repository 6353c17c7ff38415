"""
Centralized Error Messages

Single source of truth for the user-facing messages the workflows return.
Messages are plain text so the presentation layer can show them verbatim.

Usage:
    from stockroom.utils.error_messages import ErrorMessages as EM

    EM.STOCK_SHORTFALL.format(item='Vest', size='M', needed=5, available=3)
"""


class ErrorMessages:
    """User-facing error messages - never contain HTML or special characters"""

    # ==================== STOCK ====================
    STOCK_SHORTFALL = "{item} ({size}): needs {needed}, has {available}"
    STOCK_VARIANT_MISSING = "No stock row exists for {item} ({size})."
    STOCK_VARIANT_EXISTS = "A stock row already exists for {item} ({size})."
    STOCK_QUANTITY_NEGATIVE = "Stock quantity cannot be negative."

    # ==================== TRANSITIONS ====================
    TRANSITION_INVALID = "Cannot change status from {current} to {requested}."
    TRANSITION_UNKNOWN_ACTION = "Unknown action: {action}."
    LINES_LOCKED = "Lines can only be changed while the record is pending."
    INITIAL_STATUS_INVALID = "Cannot create a record with status {status}."
    STATUS_UNKNOWN = "Unknown status: {status}."

    # ==================== BATCH ====================
    BATCH_NOT_ELIGIBLE = "Skipped: status {status} does not allow {action}."
    BATCH_ENTITY_FAILED = "Record #{entity_id} could not be saved; no changes were kept for it."
    BATCH_INVALID_ID = "Skipped: {value} is not a valid id."

    # ==================== LINES ====================
    LINES_REQUIRED = "At least one line with an item, a size and a quantity is required."
    LINE_ITEM_REQUIRED = "Line {index}: an item is required."
    LINE_ITEM_UNKNOWN = "Line {index}: item #{item_id} does not exist."
    LINE_SIZE_REQUIRED = "Line {index}: a size is required."
    LINE_QUANTITY_INVALID = "Line {index}: quantity must be a whole number of at least 1."
    LINE_OVERRIDE_NEGATIVE = "Quantity for line #{line_id} cannot be negative."
    LINE_OVERRIDE_UNKNOWN = "Line #{line_id} does not belong to this record."
    OVERRIDES_INVALID = "Quantities must map line ids to whole numbers."
    NOTHING_TO_DELIVER = "Enter a delivery quantity for at least one line with stock still outstanding."

    # ==================== ENTITIES ====================
    ENTITY_NOT_FOUND = "{entity} #{entity_id} not found."
    SITE_UNKNOWN = "Site #{site_id} does not exist."
    CATEGORY_UNKNOWN = "Category #{category_id} does not exist."
    FIELD_REQUIRED = "{field} is required."
    DATE_INVALID = "{field} must be a date (YYYY-MM-DD), got {value}."

    # ==================== SUCCESS ====================
    ISSUANCE_RELEASED = "Issuance released and stock deducted."
    ISSUANCE_ISSUED = "Issuance marked as issued."
    ISSUANCE_RETURNED = "Issuance returned and stock restored."
    ISSUANCE_RETURNED_NO_RESTORE = "Issuance returned without restoring stock."
    ISSUANCE_CANCELLED = "Issuance cancelled."
    ISSUANCE_REVERTED = "Issuance moved back to pending and stock restored."
    ISSUANCE_UPDATED = "Issuance updated."
    RESTOCK_DELIVERED = "Restock delivered and stock updated."
    RESTOCK_PARTIAL = "Partial delivery recorded and stock updated."
    RESTOCK_RETURNED = "Restock returned and stock adjusted."
    RESTOCK_CANCELLED = "Restock cancelled."
    RESTOCK_UPDATED = "Restock updated."
