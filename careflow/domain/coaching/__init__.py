"""Coaching domain - Coaching sessions with or without appointments"""
