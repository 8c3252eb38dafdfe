"""
Create (or promote) an admin account.

Usage:
    python scripts/create_admin.py <email> <password> [name]
"""

import asyncio
import sys

sys.path.insert(0, ".")

from pmdash.database import async_session_maker, create_all_tables
from pmdash.exceptions import ValidationFailed
from pmdash.models import UserRole
from pmdash.schemas.user import UserCreate
from pmdash.services.auth_service import create_user, get_user_by_email


async def create_admin(email: str, password: str, name: str):
    await create_all_tables()

    async with async_session_maker() as db:
        user = await get_user_by_email(db, email)

        if user:
            user.role = UserRole.ADMIN.value
            print(f'User {email} already exists, promoted to admin')
        else:
            try:
                user = await create_user(
                    db,
                    UserCreate(email=email, password=password, name=name),
                    role=UserRole.ADMIN,
                )
            except ValidationFailed as e:
                print(f'{e.detail}:')
                for error in e.errors:
                    print(f'  - {error}')
                sys.exit(1)
            print(f'Created admin: {email}')

        await db.commit()


if __name__ == '__main__':
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)
    asyncio.run(create_admin(sys.argv[1], sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else 'Admin'))
