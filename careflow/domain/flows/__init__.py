"""Flows domain - Order and coaching flow orchestration"""
