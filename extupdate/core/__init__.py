"""Core subsystems of extupdate"""
