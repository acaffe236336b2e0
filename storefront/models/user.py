"""
SQLAlchemy User model (read-only from the order workflow)
"""
from sqlalchemy import Column, Integer, String
from storefront.database import Base


class User(Base):
    """Customer / manager account"""
    
    __tablename__ = "users"
    
    user_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False, unique=True, index=True)
    phone = Column(String(15), nullable=True)
    role = Column(String(20), nullable=False, default="customer")
    
    def __repr__(self):
        return f"<User(user_id={self.user_id}, email='{self.email}', role='{self.role}')>"
