from .tenancy import Shop, Employee
from .catalog import Product, ProductVariant
from .inventory import StockMovement
from .orders import Order, OrderLine, Commission
from .payroll import AttendanceRecord, SalaryHistoryEntry, LeaveRequest, Holiday, AdvanceSalary, PayrollRelease
from .loans import EmployeeLoan, LoanPayment

__all__ = [
    'Shop', 'Employee',
    'Product', 'ProductVariant',
    'StockMovement',
    'Order', 'OrderLine', 'Commission',
    'AttendanceRecord', 'SalaryHistoryEntry', 'LeaveRequest', 'Holiday',
    'AdvanceSalary', 'PayrollRelease',
    'EmployeeLoan', 'LoanPayment',
]
