import logging

from utils import database

logger = logging.getLogger(__name__)

DEFAULT_DOCTORS = [
    {'name': 'Dr. Sarah Chen', 'specialty': 'Physical Therapist', 'years_experience': 15, 'rating': 4.9},
    {'name': 'Dr. Michael Rodriguez', 'specialty': 'Sports Medicine Physician', 'years_experience': 12, 'rating': 4.8},
    {'name': 'Dr. Emily Johnson', 'specialty': 'Orthopedic Surgeon', 'years_experience': 20, 'rating': 4.7},
    {'name': 'Dr. James Wilson', 'specialty': 'Occupational Therapist', 'years_experience': 8, 'rating': 4.6},
]

DEFAULT_POSTS = [
    {
        'author_name': 'Dr. Sarah Chen',
        'author_title': 'Physical Therapist',
        'category': 'exercise-tips',
        'tags': ['exercise', 'knee'],
        'content': (
            "Knee recovery works best with consistency. "
            "1. Warm up for five minutes before exercising. "
            "2. Keep quad sets slow and controlled. "
            "3. Stop if pain goes above 4 out of 10."
        ),
    },
    {
        'author_name': 'Dr. Michael Rodriguez',
        'author_title': 'Sports Medicine Physician',
        'category': 'inspiration',
        'tags': ['motivation'],
        'content': 'Every small step counts. Celebrate the progress you made this week!',
    },
]


def seed_reference_data():
    """
    Insert the default doctors and feed posts into an empty database.

    Returns:
        int: Number of doctors inserted
    """
    if database.list_doctors():
        logger.info("Doctors already present, skipping seed")
        return 0

    for doctor in DEFAULT_DOCTORS:
        doctor_id = database.create_doctor(**doctor)
        for post in DEFAULT_POSTS:
            if post['author_name'] == doctor['name']:
                database.create_post(
                    author_id=doctor_id,
                    author_avatar=''.join(part[0] for part in doctor['name'].split()[1:3]),
                    author_verified=True,
                    **post
                )

    logger.info(f"Seeded {len(DEFAULT_DOCTORS)} doctors")
    return len(DEFAULT_DOCTORS)
