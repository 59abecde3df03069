"""
Seed the admin account (and optionally sample content) in an idempotent way.

Usage:
  python scripts/init_db.py            # admin account only
  python scripts/init_db.py --sample   # plus an instructor account and demo blogs/courses
"""
import argparse
import os
import sys
from pathlib import Path

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.robostaan.constants import ROLE_ADMIN, ROLE_INSTRUCTOR  # noqa: E402
from app.robostaan.models import User  # noqa: E402
from app.robostaan.modules.blogs.models import Blog  # noqa: E402
from app.robostaan.modules.blogs.service import create_blog  # noqa: E402
from app.robostaan.modules.courses.models import Course  # noqa: E402
from app.robostaan.modules.courses.service import create_course  # noqa: E402
from app.robostaan.modules.profiles.service import ensure_profile  # noqa: E402
from scripts._db_utils import resolve_database_url, script_session  # noqa: E402


SAMPLE_BLOGS = [
    {
        "title": "Getting Started with ROS 2",
        "snippet": "Install ROS 2, create a workspace and publish your first topic.",
        "content": "<p>ROS 2 is the de facto middleware for modern robots. This post walks through nodes, topics and launch files.</p>",
        "image": "https://images.unsplash.com/photo-1485827404703-89b55fcc595e",
        "author": "ROBOSTAAN Team",
        "tags": ["ROS", "Beginner"],
        "featured": True,
    },
    {
        "title": "PID Control for Line-Following Robots",
        "snippet": "Tune proportional, integral and derivative gains on a real chassis.",
        "content": "<p>A line follower is the classic first control problem. We derive the PID loop and tune it step by step.</p>",
        "image": "https://images.unsplash.com/photo-1561144257-e32e8efc6c4f",
        "author": "ROBOSTAAN Team",
        "tags": ["Control", "Arduino"],
        "featured": True,
    },
    {
        "title": "SLAM Explained",
        "snippet": "How robots build a map while localizing inside it.",
        "content": "<p>Simultaneous localization and mapping combines odometry, sensing and probabilistic estimation.</p>",
        "image": "https://images.unsplash.com/photo-1535378620166-273708d44e4c",
        "author": "ROBOSTAAN Team",
        "tags": ["SLAM", "Navigation"],
        "featured": False,
    },
]

SAMPLE_COURSES = [
    {
        "title": "Robotics Fundamentals",
        "description": "Sensors, actuators and the basics of embedded control.",
        "content": "<p>Week by week introduction to building your first mobile robot.</p>",
        "image": "https://images.unsplash.com/photo-1581092160562-40aa08e78837",
        "duration": "6 weeks",
        "category": "Beginner",
        "materials": ["Arduino Uno", "L298N motor driver", "IR sensor array"],
        "featured": True,
    },
    {
        "title": "Autonomous Navigation with ROS 2",
        "description": "Nav2, costmaps and behaviour trees on a simulated robot.",
        "content": "<p>Bring a TurtleBot from teleop to fully autonomous waypoint navigation.</p>",
        "image": "https://images.unsplash.com/photo-1563207153-f403bf289096",
        "duration": "8 weeks",
        "category": "Intermediate",
        "video_url": "https://www.youtube.com/watch?v=idQb2pB-h2Q",
        "materials": ["Ubuntu 22.04", "ROS 2 Humble", "Gazebo"],
        "featured": True,
    },
    {
        "title": "Robot Manipulation and Motion Planning",
        "description": "Kinematics, MoveIt and grasp planning for robotic arms.",
        "image": "https://images.unsplash.com/photo-1565043589221-1a6fd9ae45c7",
        "duration": "10 weeks",
        "category": "Advanced",
        "materials": ["MoveIt 2", "Python 3"],
        "featured": False,
    },
]


def _ensure_user(s: Session, email: str, password: str, role: str) -> User:
    """Create the account if missing. Does NOT overwrite an existing password or role."""
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user:
        user = User(email=email, password_hash=generate_password_hash(password), is_active=True)
        s.add(user)
        s.flush()
    ensure_profile(s, user, role=role)
    return user


def seed_only(*, database_url: str | None = None, sample: bool = False) -> None:
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@robostaan.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    with script_session(resolve_database_url(database_url)) as s:
        admin = _ensure_user(s, admin_email, admin_password, ROLE_ADMIN)

        if sample:
            instructor_email = (os.environ.get("INSTRUCTOR_EMAIL") or "instructor@robostaan.com").strip().lower()
            instructor_password = os.environ.get("INSTRUCTOR_PASSWORD") or "change-me"
            _ensure_user(s, instructor_email, instructor_password, ROLE_INSTRUCTOR)

            if s.query(Blog).count() == 0:
                for payload in SAMPLE_BLOGS:
                    create_blog(s, payload, admin)
            if s.query(Course).count() == 0:
                for payload in SAMPLE_COURSES:
                    create_course(s, payload, admin)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")
    if sample:
        print("Sample instructor, blogs and courses seeded (if missing).")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--sample", action="store_true", help="Also seed an instructor account and demo content")
    args = parser.parse_args()
    seed_only(database_url=None, sample=args.sample)


if __name__ == "__main__":
    main()
