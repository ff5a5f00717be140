"""Milestones domain - milestones, tasks and booking progress rollups"""
