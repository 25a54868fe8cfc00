"""Domain packages - one per care-flow concern"""
