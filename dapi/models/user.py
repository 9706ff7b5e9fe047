"""
User, Role, and per-model Permission Models
"""
from dataclasses import dataclass
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Table, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from dapi.database import Base

# Association table
user_roles = Table(
    'user_roles',
    Base.metadata,
    Column('user_id', Integer, ForeignKey('users.id', ondelete='CASCADE')),
    Column('role_id', Integer, ForeignKey('roles.id', ondelete='CASCADE'))
)


@dataclass(frozen=True)
class ModelAccess:
    """Effective access flags of one user on one model."""
    read: bool = False
    add: bool = False
    edit: bool = False
    delete: bool = False

    @property
    def write(self) -> bool:
        return self.add or self.edit or self.delete


FULL_ACCESS = ModelAccess(read=True, add=True, edit=True, delete=True)
NO_ACCESS = ModelAccess()


class User(Base):
    """API user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=True)
    full_name = Column(String(255))
    is_active = Column(Boolean, default=True)
    is_admin = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    roles = relationship("Role", secondary=user_roles, back_populates="users", lazy="selectin")
    permissions = relationship("ModelPermission", back_populates="user", lazy="selectin")

    def get_access(self, model_name: str) -> ModelAccess:
        """
        Resolve access to a model.

        Inactive users get nothing and admins get full access. A user-level
        permission row for the model wins over role rows; otherwise role
        rows are OR-ed together.
        """
        # is_active is None on unsaved instances; only an explicit False blocks
        if self.is_active is False:
            return NO_ACCESS
        if self.is_admin:
            return FULL_ACCESS

        model_name = model_name.lower()
        for perm in self.permissions:
            if perm.model_name.lower() == model_name:
                return perm.to_access()

        read = add = edit = delete = False
        for role in self.roles:
            for perm in role.permissions:
                if perm.model_name.lower() != model_name:
                    continue
                read = read or bool(perm.can_read)
                add = add or bool(perm.can_add)
                edit = edit or bool(perm.can_edit)
                delete = delete or bool(perm.can_delete)
        return ModelAccess(read=read, add=add, edit=edit, delete=delete)


class Role(Base):
    """Role model for RBAC."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)

    # Relationships
    users = relationship("User", secondary=user_roles, back_populates="roles")
    permissions = relationship("ModelPermission", back_populates="role", lazy="selectin")


class ModelPermission(Base):
    """Per-model access granted to a role or to a single user."""
    __tablename__ = "model_permissions"
    __table_args__ = (
        UniqueConstraint("model_name", "user_id", "role_id", name="uq_model_permission_target"),
    )

    id = Column(Integer, primary_key=True, index=True)
    model_name = Column(String(100), nullable=False, index=True)

    # Permission target (either user OR role, not both)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=True, index=True)

    can_read = Column(Boolean, default=False, nullable=False)
    can_add = Column(Boolean, default=False, nullable=False)
    can_edit = Column(Boolean, default=False, nullable=False)
    can_delete = Column(Boolean, default=False, nullable=False)

    # Relationships
    user = relationship("User", back_populates="permissions")
    role = relationship("Role", back_populates="permissions")

    def to_access(self) -> ModelAccess:
        return ModelAccess(
            read=bool(self.can_read),
            add=bool(self.can_add),
            edit=bool(self.can_edit),
            delete=bool(self.can_delete),
        )
