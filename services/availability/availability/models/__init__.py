# Package exports - these allow cleaner imports like:
# from availability.models import Equipment, SubrentalOrder
# Used by alembic/env.py for migration autogenerate
from availability.models.equipment import Equipment, EquipmentSerialNumber
from availability.models.booking import Project, ProjectEvent, ProjectEventEquipment
from availability.models.provider import ExternalProvider
from availability.models.subrental import SubrentalOrder, SubrentalOrderItem
from availability.models.repair import RepairOrder, RepairOrderItem
