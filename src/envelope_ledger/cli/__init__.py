"""Envelope Ledger command-line interface"""
