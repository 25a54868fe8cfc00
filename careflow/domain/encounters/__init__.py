"""Encounter domain - Encounter persistence, ownership checks and manual CRUD"""
