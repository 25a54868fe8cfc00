"""Linking domain - Order to appointment reconciliation"""
