"""
Timetabling Core Module - Genetic Algorithm Components.

This module contains the calendar, input entities, chromosome
representation, population management, the evolution engine and the run
registry.
"""
