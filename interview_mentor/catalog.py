from __future__ import annotations

from typing import List

from interview_mentor.models import Question


def _q(id: str, text: str, category: str) -> Question:
	return Question(id=id, text=text, category=category)


# Fixed catalog order; custom questions are always listed before these.
STATIC_QUESTIONS: List[Question] = [
	_q("1", "What is Angular Framework?", "Basics"),
	_q("2", "What is the difference between AngularJS and Angular?", "Basics"),
	_q("3", "What is TypeScript?", "Basics"),
	_q("4", "Write a pictorial diagram of Angular architecture?", "Basics"),
	_q("5", "What are the key components of Angular?", "Architecture"),
	_q("6", "What are directives?", "Basics"),
	_q("7", "What are components?", "Basics"),
	_q("8", "What are the differences between Component and Directive?", "Basics"),
	_q("9", "What is a template?", "Basics"),
	_q("10", "What is a module?", "Basics"),
	_q("11", "What are the lifecycle hooks available?", "Lifecycle"),
	_q("12", "What is data binding?", "Basics"),
	_q("13", "What is metadata?", "Architecture"),
	_q("14", "What is Angular CLI?", "Tooling"),
	_q("15", "What is the difference between constructor and ngOnInit?", "Lifecycle"),
	_q("16", "What is a service?", "Architecture"),
	_q("17", "What is dependency injection in Angular?", "Architecture"),
	_q("19", "What is the purpose of async pipe?", "Pipes"),
	_q("21", "What is the purpose of *ngFor directive?", "Directives"),
	_q("22", "What is the purpose of ngIf directive?", "Directives"),
	_q("33", "What is the difference between pure and impure pipe?", "Pipes"),
	_q("36", "What is HttpClient and its benefits?", "HTTP"),
	_q("44", "What is the difference between promise and observable?", "RxJS"),
	_q("63", "What is Angular Router?", "Routing"),
	_q("111", "What is Angular Ivy?", "Advanced"),
	_q("143", "What is lazy loading?", "Advanced"),
	_q("y1", "What is a good use case for ngrx/store or ngrx/entity?", "Architecture"),
	_q("y2", "Can you talk about a bug related to a race condition, how to solve it and how to test it?", "Architecture"),
	_q("y3", "What is the difference between a smart/container component and a dumb/presentational component?", "Architecture"),
	_q("y4", "Why would you use renderer methods instead of native element methods?", "Advanced"),
	_q("y7", "How would you protect a component being activated through the router?", "Routing"),
	_q("t1", "What happens if you subscribe to a data source multiple times with async pipe?", "Templates"),
	_q("t2", "What is the difference between ng-content, ng-container and ng-template?", "Templates"),
	_q("t3", "Are you working with attributes or properties in data-binding?", "Templates"),
	_q("r1", "What is the difference between an observable and a subject?", "RxJS"),
	_q("r2", "How would you implement multiple api calls that need to happen in order using rxjs?", "RxJS"),
	_q("r3", "What is the difference between switchMap, concatMap and mergeMap?", "RxJS"),
	_q("r4", "What is the difference between scan() vs reduce()?", "RxJS"),
	_q("c1", "What is GraphQL and how does it compare to REST?", "Modern Tech"),
	_q("c2", "How would you recreate Angular's [(ngModel)] behavior in plain JavaScript?", "Challenges"),
	_q("c3", "What is the difference between readonly and const in TypeScript?", "TypeScript"),
	_q("c4", "What are XSS attacks, and how do you secure Angular apps from them?", "Security"),
	_q("g1", "Explain the difference between var, let and const.", "JavaScript"),
	_q("g2", "What is hoisting in JavaScript?", "JavaScript"),
	_q("g3", "What is a closure?", "JavaScript"),
	_q("g4", "What is memoization?", "JavaScript"),
]


def catalog_categories(questions: List[Question]) -> List[str]:
	"""Distinct categories in first-seen order."""
	seen: List[str] = []
	for q in questions:
		if q.category and q.category not in seen:
			seen.append(q.category)
	return seen
