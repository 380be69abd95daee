from app import create_app
from app import firestore_dao as dao
from app import mutations
from app.firebase_init import get_auth
from app.firestore_models import Account, ROLE_STUDENT, ROLE_TEACHER
from app.identity import login_id_for

PASSWORD = 'password123'


def seed_database():
    app = create_app()
    with app.app_context():
        auth = get_auth()

        def create_account(handle, name, role):
            login_id = login_id_for(handle)
            try:
                fb_user = auth.create_user(email=login_id, password=PASSWORD, display_name=name)
            except auth.EmailAlreadyExistsError:
                fb_user = auth.get_user_by_email(login_id)
            account = Account(uid=fb_user.uid, name=name, username=handle, role=role, onboarded=True)
            dao.create_account(fb_user.uid, account)
            return account

        print("Creating accounts...")
        teacher = create_account('ustadh', 'أ. محمد علي', ROLE_TEACHER)
        students = [
            create_account('ahmed', 'أحمد سامي', ROLE_STUDENT),
            create_account('mariam', 'مريم خالد', ROLE_STUDENT),
            create_account('yousef', 'يوسف حسن', ROLE_STUDENT),
            create_account('salma', 'سلمى عادل', ROLE_STUDENT),
        ]

        print("Creating groups...")
        physics = mutations.create_group(teacher.uid, 'فيزياء - ثالثة ثانوي', 'سنتر النور', '01000000000')
        chemistry = mutations.create_group(teacher.uid, 'كيمياء - ثانية ثانوي', 'سنتر الفجر')

        mutations.add_schedule_entry(physics.id, 'الأحد', '16:00')
        mutations.add_schedule_entry(physics.id, 'الأربعاء', '18:30')
        mutations.add_schedule_entry(chemistry.id, 'الاثنين', '17:00')

        print("Enrolling students...")
        for student in students[:3]:
            mutations.add_student(physics.id, student.name, student.username)
        for student in students[2:]:
            mutations.add_student(chemistry.id, student.name, student.username)

        print("Creating exams and grades...")
        group = mutations.add_exam(physics.id, 'امتحان الفصل الأول', '2024-10-05', 20)
        exam = group.exams[-1]
        grades = [('present', 18), ('present', 25), ('absent', None)]
        for roster_entry, (status, grade) in zip(group.students, grades):
            mutations.record_grade(physics.id, exam.id, roster_entry.id, status, grade)

        group = mutations.add_exam(chemistry.id, 'اختبار شهري', '2024-10-12', 50, exam_type='semester')
        exam = group.exams[-1]
        for roster_entry in group.students:
            mutations.record_grade(chemistry.id, exam.id, roster_entry.id, 'present', 40)

        physics = dao.get_group(physics.id)
        mutations.toggle_paid(physics.id, physics.students[0].id)
        mutations.toggle_starred(physics.id, physics.students[0].id)

        print("\nSeed data created successfully!")
        print(f"Teacher: {teacher.username} / {PASSWORD}")
        for student in students:
            print(f"Student: {student.username} / {PASSWORD}")


if __name__ == '__main__':
    seed_database()
