"""Bookings domain - booking lifecycle, derived status and invoices"""
