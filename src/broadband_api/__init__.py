"""Broadband API — broadband provider availability by address or coordinates."""
