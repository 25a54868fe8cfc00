"""Appointments domain - Appointment lookups and appointment-based encounters"""
