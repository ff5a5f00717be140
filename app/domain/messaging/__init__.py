"""Messaging domain - milestone comment threads and direct booking messages"""
