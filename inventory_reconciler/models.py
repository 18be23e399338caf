# inventory_reconciler/models.py
from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, Text, JSON, Index
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
import enum

Base = declarative_base()


class AlertType(str, enum.Enum):
    """Alert types, in priority order."""
    PURCHASE = 'purchase'
    RESTOCK = 'restock'


class Severity(str, enum.Enum):
    HIGH = 'high'
    MEDIUM = 'medium'


class LocationType(str, enum.Enum):
    """Inventory location types that the engine treats specially.

    Any other location type is considered pickable.
    """
    BACKSTOCK = 'BackStock'
    PRODUCTION = 'Production'
    BATCH = 'Batch'


class Order(Base):
    __tablename__ = 'orders'

    order_id = Column(String(64), primary_key=True)
    order_number = Column(String(64), index=True)
    store_id = Column(String(64))
    order_status = Column(String(32), index=True)
    tracking_number = Column(String(128))
    actual_ship_date = Column(DateTime(timezone=True))
    order_date = Column(DateTime(timezone=True))


class OrderItem(Base):
    __tablename__ = 'order_items'

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(64), index=True)
    sku = Column(String(128))
    quantity = Column(Float)


class Product(Base):
    __tablename__ = 'products'

    id = Column(Integer, primary_key=True, autoincrement=True)
    Sku = Column(String(128))


class Bundle(Base):
    __tablename__ = 'bundle'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128))


class ClientInventory(Base):
    __tablename__ = 'client_inventory'

    id = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String(128))
    client_id = Column(String(64))


class InventoryLocation(Base):
    __tablename__ = 'inventory_locations'

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(64))
    type = Column(String(32))


class InventoryStockLevel(Base):
    __tablename__ = 'inventory_stock_levels'

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_type = Column(String(32), nullable=False)
    item_id = Column(String(64), nullable=False)
    location_id = Column(Integer, nullable=False)
    on_hand = Column(Float, default=0)
    available = Column(Float)
    updated_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index('ix_stock_levels_item', 'item_type', 'item_id'),
    )


class InventoryAlert(Base):
    """Restock/purchase alert. Logical key: (client_id, item_type, alert_type, message).

    No unique constraint is declared here; deployments that lack one exercise the
    emulated upsert in AlertService.
    """
    __tablename__ = 'inventory_alerts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String(64))
    item_type = Column(String(32))
    item_id = Column(String(64))
    alert_type = Column(String(16))
    message = Column(String(255))
    severity = Column(String(16))
    is_active = Column(Boolean, default=True)
    updated_at = Column(DateTime(timezone=True))


class InventoryMovement(Base):
    __tablename__ = 'inventory_movements'

    id = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String(128))
    reference_type = Column(String(32))
    reference_id = Column(String(64))
    reason = Column(String(64))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('ix_movements_reference', 'reference_type', 'reference_id'),
    )


class Shipment(Base):
    __tablename__ = 'shipments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(32))
    type = Column(String(32))
    shipstation_numeric_shipment_id = Column(String(64))
    fulfillment_id = Column(String(64))
    order_id = Column(String(64))
    order_number = Column(String(64))
    user_id = Column(String(64))
    customer_email = Column(String(255))
    tracking_number = Column(String(128), index=True)
    create_date = Column(DateTime(timezone=True))
    ship_date = Column(DateTime(timezone=True))
    void_date = Column(DateTime(timezone=True))
    delivery_date = Column(DateTime(timezone=True))
    carrier_code = Column(String(64))
    service_code = Column(String(64))
    package_code = Column(String(64))
    confirmation = Column(String(64))
    warehouse_id = Column(String(64))
    shipment_cost = Column(Float)
    insurance_cost = Column(Float)
    fulfillment_fee = Column(Float)
    void_requested = Column(Boolean)
    voided = Column(Boolean, default=False)
    marketplace_notified = Column(Boolean)
    notify_error_message = Column(Text)
    ship_to_name = Column(String(255))
    ship_to_company = Column(String(255))
    ship_to_street1 = Column(String(255))
    ship_to_street2 = Column(String(255))
    ship_to_street3 = Column(String(255))
    ship_to_city = Column(String(128))
    ship_to_state = Column(String(64))
    ship_to_postal_code = Column(String(32))
    ship_to_country = Column(String(8))
    ship_to_phone = Column(String(64))
    ship_to_residential = Column(Boolean)
    shipment_items = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    is_fulfillment = Column(Boolean)
    source_api_shipment_id = Column(String(64))
    label_pdf_url = Column(Text)
    status = Column(String(32))
    shipengine_label_id = Column(String(64))
    receipt_pdf_url = Column(Text)
    usps_transaction_id = Column(String(64))
    shipstation_actual_shipment_id = Column(String(64))
    create_date_shipstation = Column(DateTime(timezone=True))


class ShipStationEvent(Base):
    __tablename__ = 'shipstation_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shipstation_id = Column(String(64))
    order_id = Column(String(64), index=True)
    order_number = Column(String(64), index=True)
    store_id = Column(String(64))
    tracking_number = Column(String(128))
    carrier_code = Column(String(64))
    service_code = Column(String(64))
    package_code = Column(String(64))
    confirmation = Column(String(64))
    warehouse_id = Column(String(64))
    shipment_cost = Column(Float)
    insurance_cost = Column(Float)
    fulfillment_fee = Column(Float)
    create_date = Column(String(32))
    ship_date = Column(String(32))
    voided = Column(Boolean)
    is_return_label = Column(Boolean)
    marketplace_notified = Column(Boolean)
    notify_error_message = Column(Text)
    source_type = Column(String(64))


class ShipEngineEvent(Base):
    __tablename__ = 'shipengine_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shipengine_id = Column(String(64))
    order_number = Column(String(64), index=True)
    tracking_number = Column(String(128))
    carrier_code = Column(String(64))
    service_code = Column(String(64))
    package_code = Column(String(64))
    shipment_status = Column(String(32))
    ship_date = Column(String(32))
    create_date = Column(String(32))
    voided = Column(Boolean)
    voided_at = Column(String(32))
    is_return_label = Column(Boolean)
    ship_to_name = Column(String(255))
    ship_to_company = Column(String(255))
    ship_to_street1 = Column(String(255))
    ship_to_street2 = Column(String(255))
    ship_to_street3 = Column(String(255))
    ship_to_city = Column(String(128))
    ship_to_state = Column(String(64))
    ship_to_postal_code = Column(String(32))
    ship_to_country = Column(String(8))
    ship_to_phone = Column(String(64))
    ship_to_residential = Column(Boolean)
    shipping_amount = Column(Float)
    insurance_amount = Column(Float)


class LabelLedgerEntry(Base):
    __tablename__ = 'label_ledger'

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_ref = Column(String(64), index=True)
    tracking_number = Column(String(128))
    raw_payload = Column(JSON)
    raw_response = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
