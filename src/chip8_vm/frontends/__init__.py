"""Windowed collaborators for the frame driver.

Importing this package does not import pygame; import
``chip8_vm.frontends.pygame_frontend`` explicitly.
"""
