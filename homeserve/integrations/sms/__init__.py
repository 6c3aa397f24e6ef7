"""
SMS integration
===============

Public re-exports for OTP delivery.
"""

from .smsGateway import (
    HttpSmsGateway,
    LoggingSmsGateway,
    SmsDeliveryError,
    SmsGateway,
    get_sms_gateway,
    mask_mobile,
)

__all__ = [
    "HttpSmsGateway",
    "LoggingSmsGateway",
    "SmsDeliveryError",
    "SmsGateway",
    "get_sms_gateway",
    "mask_mobile",
]
