"""
Database models for the food-delivery tables.
"""
from sqlalchemy import Column, Integer, String, Float, Date, Time, ForeignKey
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Customer(Base):
    """Registered customers."""
    __tablename__ = 'customers'

    customer_id = Column(Integer, primary_key=True)
    customer_name = Column(String(100), nullable=False)
    reg_date = Column(Date)


class Restaurant(Base):
    """Restaurants taking orders."""
    __tablename__ = 'restaurants'

    restaurant_id = Column(Integer, primary_key=True)
    restaurant_name = Column(String(100), nullable=False)
    city = Column(String(50), nullable=False)
    country = Column(String(50))
    opening_hours = Column(String(50))


class Rider(Base):
    """Delivery riders."""
    __tablename__ = 'riders'

    rider_id = Column(Integer, primary_key=True)
    rider_name = Column(String(100))
    sign_up = Column(Date)


class Order(Base):
    """One row per placed order."""
    __tablename__ = 'orders'

    order_id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey('customers.customer_id'), nullable=False)
    restaurant_id = Column(Integer, ForeignKey('restaurants.restaurant_id'), nullable=False)
    order_item = Column(String(100), nullable=False)
    quantity = Column(Integer)
    order_date = Column(Date, nullable=False)
    order_time = Column(Time, nullable=False)
    order_status = Column(String(50))
    total_amount = Column(Float, nullable=False)


class Delivery(Base):
    """At most one delivery per order."""
    __tablename__ = 'deliveries'

    delivery_id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.order_id'), nullable=False, unique=True)
    delivery_status = Column(String(50), nullable=False)
    delivery_time = Column(Time)
    rider_id = Column(Integer, ForeignKey('riders.rider_id'))
