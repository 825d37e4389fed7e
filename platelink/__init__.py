# PlateLink — plate-indexed vehicle registry with a credit-gated contact ledger
__version__ = "1.0.0"
