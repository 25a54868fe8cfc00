"""Orders domain - Order-type registry, classification and order lookups"""
