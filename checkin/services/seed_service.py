"""Database seeding service for development data."""
from checkin import db
from checkin.models.user import User, UserRole
from checkin.models.student import Student
from checkin.models.group import Group, GroupEnrollment
from checkin.services.credit_ledger import CreditLedger

class SeedService:
    """Service to seed database with development data."""

    @staticmethod
    def seed_all():
        """Seed all development data."""
        admin = SeedService.seed_staff()
        groups = SeedService.seed_groups()
        SeedService.seed_students(groups, admin)

    @staticmethod
    def seed_staff() -> User:
        """Seed staff accounts and return the admin."""
        staff = [
            ('Center Admin', 'admin@center.local', UserRole.ADMIN),
            ('Front Desk', 'desk@center.local', UserRole.SECRETARY),
            ('Math Teacher', 'math@center.local', UserRole.TEACHER),
        ]

        for name, email, role in staff:
            if not User.query.filter_by(email=email).first():
                db.session.add(User(email=email, name=name, role=role))

        db.session.commit()
        print(f"Staff accounts: {User.query.count()}")
        return User.query.filter_by(email='admin@center.local').first()

    @staticmethod
    def seed_groups() -> list:
        """Seed teaching groups and assign the teacher to them."""
        teacher = User.query.filter_by(email='math@center.local').first()
        groups = []

        for name, subject in [('Algebra A', 'Mathematics'), ('Physics B', 'Physics')]:
            group = Group.query.filter_by(name=name).first()
            if not group:
                group = Group(name=name, subject=subject, max_students=20)
                db.session.add(group)
            if teacher and group not in teacher.assigned_groups:
                teacher.assigned_groups.append(group)
            groups.append(group)

        db.session.commit()
        print(f"Groups: {Group.query.count()}")
        return groups

    @staticmethod
    def seed_students(groups: list, admin: User):
        """Seed students, enroll them and record an opening payment each."""
        ledger = CreditLedger()
        names = ['Lina Haddad', 'Omar Saleh', 'Sara Nassar', 'Yousef Amin']

        for index, full_name in enumerate(names):
            if Student.query.filter_by(full_name=full_name).first():
                continue

            student = Student(full_name=full_name, phone=f'0790000{index:03d}')
            db.session.add(student)
            db.session.flush()

            group = groups[index % len(groups)]
            db.session.add(GroupEnrollment(group_id=group.id, student_id=student.id))
            db.session.add(User(
                email=f'student{student.id}@center.local',
                name=full_name,
                role=UserRole.STUDENT,
                student_id=student.id
            ))
            db.session.commit()

            ledger.apply_payment(student.id, amount=40, credits_added=8, actor=admin,
                                 reference='opening balance')

        print(f"Students: {Student.query.count()}")
