"""Orchestration services: account binding, order placement and execution,
challenge selection and propagation, polling, and key material.
"""
