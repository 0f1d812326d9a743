from crm_admin.models.client import Client, ClientType
from crm_admin.models.department import Department
from crm_admin.models.staff import Staff, StaffRole, StaffStatus
from crm_admin.models.staff_communication import StaffCommunication
from crm_admin.models.user import User
