"""Slot calculation"""
