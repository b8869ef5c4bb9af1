from .enums import (
    RegistrationStatus, RegistrationSource, PaymentStatus, ProgramStatus, InstallmentStatus, CreditStatus,
)
from .orders import Order, Product
from .registrations import Registration, ProgramSetting, ProgramColor
from .payments import Installment, Credit

__all__ = [
    'RegistrationStatus', 'RegistrationSource', 'PaymentStatus', 'ProgramStatus',
    'InstallmentStatus', 'CreditStatus',
    'Order', 'Product',
    'Registration', 'ProgramSetting', 'ProgramColor',
    'Installment', 'Credit',
]
