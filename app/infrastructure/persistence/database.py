# app/infrastructure/persistence/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.ext.declarative import declarative_base

import config

# La URL de la base de datos se lee desde el archivo .env (ver config.py)
DATABASE_URL = config.DATABASE_URL
if not DATABASE_URL:
    raise ValueError("No se ha definido DATABASE_URL en el archivo .env")

engine = create_engine(DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
