"""Shared low-level helpers"""
