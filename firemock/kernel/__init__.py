"""Kernel plumbing for firemock: errors, logging, configuration and ports."""
