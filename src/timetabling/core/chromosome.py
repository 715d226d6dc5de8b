"""
Chromosome Representation for the Timetable Genetic Algorithm.

A chromosome is one candidate schedule for a whole scope: a fixed-length
sequence of assignment genes, one per required teaching block. Gene order
follows the required-block list so that positional crossover lines up
across the population.
"""

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import hashlib
import json
import random

import numpy as np

from src.timetabling.core.calendar import Slot
from src.timetabling.core.entities import Course, ProfessorProfile, Room
from src.timetabling.core.errors import InputError


class CrossoverType(IntEnum):
    """Crossover operator selected by the run parameters."""
    ONE_POINT = 1
    TWO_POINT = 2


@dataclass(frozen=True)
class RequiredBlock:
    """One weekly teaching block a professor owes for a course."""
    professor_id: str
    course_id: str
    block_number: int


@dataclass(frozen=True)
class Gene:
    """
    One (course, room, slot) assignment.

    The professor and block number are fixed by the gene's position; only
    room_id and slot_index are searched.
    """
    professor_id: str
    course_id: str
    block_number: int
    room_id: str
    slot_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "professor_id": self.professor_id,
            "course_id": self.course_id,
            "block_number": self.block_number,
            "room_id": self.room_id,
            "slot_index": self.slot_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Gene":
        return cls(
            professor_id=data["professor_id"],
            course_id=data["course_id"],
            block_number=data["block_number"],
            room_id=data["room_id"],
            slot_index=data["slot_index"],
        )


def build_required_blocks(
    professor_ids: Sequence[str],
    profiles: Mapping[str, ProfessorProfile],
    courses: Mapping[str, Course],
    block_minutes: int,
) -> List[RequiredBlock]:
    """
    Expand every professor's course list into weekly teaching blocks.

    Raises:
        InputError: unknown professor or course, inactive course, or a
            professor with no courses to teach.
    """
    blocks: List[RequiredBlock] = []
    for professor_id in professor_ids:
        profile = profiles.get(professor_id)
        if profile is None:
            raise InputError(
                f"No profile for professor {professor_id}",
                details={"professor_id": professor_id},
            )
        if not profile.courses:
            raise InputError(
                f"Professor {professor_id} has no courses configured",
                details={"professor_id": professor_id},
            )
        for preference in profile.courses:
            course = courses.get(preference.course_id)
            if course is None:
                raise InputError(
                    f"Unknown course {preference.course_id} for professor {professor_id}",
                    details={"professor_id": professor_id, "course_id": preference.course_id},
                )
            if not course.active:
                raise InputError(
                    f"Course {course.code} is inactive",
                    details={"course_id": course.id},
                )
            for block_number in range(course.required_blocks(block_minutes)):
                blocks.append(RequiredBlock(professor_id, course.id, block_number))
    return blocks


@dataclass
class GeneDomain:
    """Values a gene may take: any calendar slot and any room that can host the course."""
    slots: Tuple[Slot, ...]
    rooms_by_course: Dict[str, Tuple[str, ...]]

    @classmethod
    def build(cls, slots: Sequence[Slot], courses: Mapping[str, Course],
              rooms: Sequence[Room], course_ids: Sequence[str]) -> "GeneDomain":
        if not slots:
            raise InputError("Calendar produced no slots")
        if not rooms:
            raise InputError("No rooms available for generation")

        rooms_by_course: Dict[str, Tuple[str, ...]] = {}
        for course_id in dict.fromkeys(course_ids):
            course = courses[course_id]
            feasible = tuple(room.id for room in rooms if room.can_host(course))
            if not feasible:
                raise InputError(
                    f"No room can host course {course.code}",
                    details={
                        "course_id": course.id,
                        "enrollment": course.enrollment,
                        "required_room_type": course.required_room_type.value
                        if course.required_room_type else None,
                    },
                )
            rooms_by_course[course_id] = feasible
        return cls(slots=tuple(slots), rooms_by_course=rooms_by_course)

    def random_room(self, course_id: str, rng: random.Random) -> str:
        return rng.choice(self.rooms_by_course[course_id])

    def random_slot(self, rng: random.Random) -> int:
        return rng.randrange(len(self.slots))


class ScheduleChromosome:
    """
    Chromosome representing a complete schedule for a scope.

    Length is fixed at the number of required blocks for the scope.
    """

    def __init__(self, genes: Optional[List[Gene]] = None):
        self.genes: List[Gene] = list(genes or [])
        self.generation: int = 0
        self.metadata: Dict[str, Any] = {}
        self.chromosome_id: str = self._generate_id()

    def _generate_id(self) -> str:
        content = json.dumps([g.to_dict() for g in self.genes], sort_keys=True)
        return hashlib.sha256(content.encode()).hexdigest()[:16]

    def __len__(self) -> int:
        return len(self.genes)

    @classmethod
    def random_init(cls, blocks: Sequence[RequiredBlock], domain: GeneDomain,
                    rng: random.Random) -> "ScheduleChromosome":
        """Assign every block a uniformly chosen feasible room and slot."""
        genes = [
            Gene(
                professor_id=block.professor_id,
                course_id=block.course_id,
                block_number=block.block_number,
                room_id=domain.random_room(block.course_id, rng),
                slot_index=domain.random_slot(rng),
            )
            for block in blocks
        ]
        return cls(genes)

    def crossover(self, other: "ScheduleChromosome", crossover_type: CrossoverType,
                  rng: random.Random) -> Tuple["ScheduleChromosome", "ScheduleChromosome"]:
        """Perform crossover with another chromosome of the same length."""
        if len(self) != len(other):
            raise ValueError(f"Cannot cross chromosomes of length {len(self)} and {len(other)}")

        if crossover_type == CrossoverType.ONE_POINT:
            return self._single_point_crossover(other, rng)
        elif crossover_type == CrossoverType.TWO_POINT:
            return self._two_point_crossover(other, rng)
        else:
            raise ValueError(f"Unknown crossover type: {crossover_type}")

    def _single_point_crossover(self, other: "ScheduleChromosome",
                                rng: random.Random) -> Tuple["ScheduleChromosome", "ScheduleChromosome"]:
        size = len(self)
        if size < 2:
            return self.clone(), other.clone()

        point = rng.randint(1, size - 1)
        child1 = self.genes[:point] + other.genes[point:]
        child2 = other.genes[:point] + self.genes[point:]
        return ScheduleChromosome(child1), ScheduleChromosome(child2)

    def _two_point_crossover(self, other: "ScheduleChromosome",
                             rng: random.Random) -> Tuple["ScheduleChromosome", "ScheduleChromosome"]:
        size = len(self)
        if size < 3:
            return self._single_point_crossover(other, rng)

        point1 = rng.randint(1, size - 2)
        point2 = rng.randint(point1 + 1, size - 1)

        child1 = self.genes[:point1] + other.genes[point1:point2] + self.genes[point2:]
        child2 = other.genes[:point1] + self.genes[point1:point2] + other.genes[point2:]
        return ScheduleChromosome(child1), ScheduleChromosome(child2)

    def mutate(self, domain: GeneDomain, mutation_rate: float, rng: random.Random) -> int:
        """
        Reassign room and/or slot of each gene with probability mutation_rate.

        Returns the number of mutated genes.
        """
        mutated = 0
        for position, gene in enumerate(self.genes):
            if rng.random() >= mutation_rate:
                continue
            target = rng.choice(("room", "slot", "both"))
            room_id = gene.room_id
            slot_index = gene.slot_index
            if target in ("room", "both"):
                room_id = domain.random_room(gene.course_id, rng)
            if target in ("slot", "both"):
                slot_index = domain.random_slot(rng)
            self.genes[position] = replace(gene, room_id=room_id, slot_index=slot_index)
            mutated += 1

        if mutated:
            self.chromosome_id = self._generate_id()
        return mutated

    def as_array(self, room_index: Mapping[str, int]) -> np.ndarray:
        """Encode genes as an (n, 2) integer array of room and slot indices."""
        return np.array(
            [(room_index[g.room_id], g.slot_index) for g in self.genes],
            dtype=np.int64,
        ).reshape(len(self.genes), 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chromosome_id": self.chromosome_id,
            "generation": self.generation,
            "genes": [g.to_dict() for g in self.genes],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleChromosome":
        chromosome = cls(genes=[Gene.from_dict(g) for g in data.get("genes", [])])
        chromosome.generation = data.get("generation", 0)
        chromosome.metadata = dict(data.get("metadata", {}))
        return chromosome

    def clone(self) -> "ScheduleChromosome":
        """Create an independent copy of this chromosome."""
        chromosome = ScheduleChromosome(list(self.genes))
        chromosome.generation = self.generation
        chromosome.metadata = dict(self.metadata)
        return chromosome

    def __repr__(self) -> str:
        return f"ScheduleChromosome(id={self.chromosome_id[:8]}, genes={len(self.genes)})"
