# app/infrastructure/persistence/models.py
from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship

from .database import Base


class Proveedor(Base):
    __tablename__ = "proveedores"

    id = Column(Integer, primary_key=True)
    nombre = Column(String(255), nullable=False)
    correo = Column(String(255))


class Pago(Base):
    __tablename__ = "pagos"

    id_pago = Column(Integer, primary_key=True)
    usuario_id = Column(Integer, nullable=False, index=True)
    proveedor_id = Column(Integer, ForeignKey("proveedores.id"), nullable=False, index=True)
    cliente = Column(String(255), nullable=False)
    monto = Column(Numeric(14, 2), nullable=False)
    codigo = Column(String(100), default="")
    fecha_pago = Column(Date, nullable=False, index=True)
    estado = Column(String(30), nullable=False)
    esta_activo = Column(Boolean, nullable=False, default=True)
    esta_verificado = Column(Boolean, nullable=False, default=False)

    proveedor = relationship("Proveedor")


class EnvioCorreo(Base):
    __tablename__ = "envios_correo"

    id_envio = Column(Integer, primary_key=True)
    proveedor_id = Column(Integer, ForeignKey("proveedores.id"), nullable=False, index=True)
    usuario_envio_id = Column(Integer, nullable=False, index=True)
    fecha_resumen = Column(Date, nullable=False, index=True)
    cantidad_pagos = Column(Integer, nullable=False)
    monto_total = Column(Numeric(14, 2), nullable=False)
    asunto_correo = Column(String(500), nullable=False)
    cuerpo_correo = Column(Text, nullable=False)
    estado = Column(String(30), nullable=False)
    fecha_envio = Column(DateTime(timezone=True), nullable=False)

    proveedor = relationship("Proveedor")
    detalles = relationship("DetalleEnvioCorreo", back_populates="envio", order_by="DetalleEnvioCorreo.id")


class DetalleEnvioCorreo(Base):
    """Vínculo pago -> envío. `pago_id` es único: un pago solo puede consumirse una vez."""
    __tablename__ = "detalle_envio_correo"
    __table_args__ = (UniqueConstraint("pago_id", name="uq_detalle_envio_correo_pago"),)

    id = Column(Integer, primary_key=True)
    envio_id = Column(Integer, ForeignKey("envios_correo.id_envio"), nullable=False, index=True)
    pago_id = Column(Integer, ForeignKey("pagos.id_pago"), nullable=False)
    canal = Column(String(20), nullable=False)

    envio = relationship("EnvioCorreo", back_populates="detalles")
