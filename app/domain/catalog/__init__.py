"""Catalog domain - services offered by providers and their packages"""
